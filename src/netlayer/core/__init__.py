"""Request pipeline core: endpoints, request building, retries and execution."""
