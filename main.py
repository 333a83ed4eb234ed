import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from tortoise.contrib.fastapi import RegisterTortoise

import config
from pysignnote.api import router as api_router
from pysignnote.errors import IdentityError
from pysignnote.keystore import KeyStore, SecretStore
from pysignnote.loader import LoadWorker
from pysignnote.truststore import TrustStore
from pysignnote.web import router as web_router

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("pysignnote")


def create_app(data_dir: Optional[Path] = None, db_url: Optional[str] = None,
               key_size: int = config.RSA_KEY_SIZE) -> FastAPI:
    """Build the application.

    With ``data_dir`` set, the database and identity files live there instead
    of the locations in config.py.
    """
    if data_dir is None:
        data_dir = config.DATA_DIR
        identity_path, master_key_path = config.IDENTITY_STORE_PATH, config.MASTER_KEY_PATH
        db_url = db_url or config.DB_URL
    else:
        data_dir = Path(data_dir)
        identity_path, master_key_path = data_dir / "identity.json", data_dir / "master.key"
        db_url = db_url or f"sqlite://{data_dir / 'pysignnote.db'}"

    # --- Identity, database and load worker lifetime ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        data_dir.mkdir(parents=True, exist_ok=True)

        # Load the identity on startup; a broken one disables signing but not loading
        keystore = KeyStore(SecretStore(identity_path, master_key_path), key_size=key_size)
        try:
            keystore.get_or_create_identity()
        except IdentityError as e:
            logger.critical("Signing and key export disabled: %s", e)

        async with RegisterTortoise(
            app,
            db_url=db_url,
            modules={"models": ["pysignnote.database"]},
            generate_schemas=True,
        ):
            trust_store = TrustStore()
            worker = LoadWorker(trust_store)
            app.state.keystore = keystore
            app.state.trust_store = trust_store
            app.state.worker = worker
            await worker.start()
            try:
                yield
            finally:
                # Jobs must not outlive the database connection
                await worker.stop()

    app = FastAPI(title="PySignNote", lifespan=lifespan)
    app.include_router(web_router)
    app.include_router(api_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL)
