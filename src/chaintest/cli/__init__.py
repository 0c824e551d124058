"""ChainTest command line interface."""
