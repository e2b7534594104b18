import logging
import webbrowser

import uvicorn

from nebula.config import load_settings


def open_browser_once(host: str, port: int):
    url = f"http://{host}:{port}/"
    print(f"[server] Opening {url}")
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        pass


def main():
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    print(f"[server] Data directory: {settings.data_dir.resolve()}")

    config = uvicorn.Config(
        "nebula.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
    server = uvicorn.Server(config)
    if settings.host in {"127.0.0.1", "localhost"}:
        open_browser_once(settings.host, settings.port)
    server.run()


if __name__ == "__main__":
    main()
