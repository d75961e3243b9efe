"""dynacounter command line interface."""
