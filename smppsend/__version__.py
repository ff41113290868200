about = {
    "__title__": "smppsend",
    "__description__": "Command line SMPP client: bind, submit, wait for delivery receipts.",
    "__version__": "v0.1.0",
    "__license__": "MIT",
}
