# newsletter_api/__main__.py
import uvicorn

from newsletter_api.config import settings


def main():
    uvicorn.run(
        "newsletter_api.main:app",
        host=settings.application.host,
        port=settings.application.port,
        log_config=None,  # keep the handlers installed by newsletter_api.telemetry
    )


if __name__ == "__main__":
    main()
