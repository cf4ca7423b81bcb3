"""Station: the HTTP and push surface over acquisition and delivery."""
