"""HTTP service exposing the schedulers and a JSON snapshot store."""
