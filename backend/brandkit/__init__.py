"""Brand kit generation backend."""
