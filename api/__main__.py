"""Allow running: python -m api"""
import os

import uvicorn


def _resolve_port() -> int:
    """First valid port from RAILWAY_PORT, then PORT; 8000 otherwise."""
    for var in ("RAILWAY_PORT", "PORT"):
        val = os.getenv(var)
        if val:
            try:
                return int(val)
            except ValueError:
                print(f"Ignoring {var}={val!r}: not a port number")
    return 8000


def main() -> None:
    port = _resolve_port()
    host = os.getenv("HOST", "0.0.0.0")
    print(f"Starting job tracker on {host}:{port} (backend={os.getenv('UCIE_BASE_URL') or 'profile default'})")
    uvicorn.run("api.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
