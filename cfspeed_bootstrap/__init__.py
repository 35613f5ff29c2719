"""cfspeed-bootstrap — verified installer for cloudflare-speed-cli release binaries."""

__version__ = "0.1.0"
