"""Training, checkpointing and run assembly."""
