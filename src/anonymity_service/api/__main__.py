# src/anonymity_service/api/__main__.py
from __future__ import annotations

import uvicorn

from anonymity_service.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so ANONSVC_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from anonymity_service.api.app import create_app
    from anonymity_service.api.structured_logging import configure_structured_logging
    from anonymity_service.runtime.service_config import load_service_config

    cfg = load_service_config()
    configure_structured_logging(cfg.log_level)

    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
