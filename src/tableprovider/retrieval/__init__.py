"""Row retrieval: provider state machine and transports."""
