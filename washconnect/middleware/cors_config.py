from fastapi.middleware.cors import CORSMiddleware

from washconnect.config import Settings


def configure_cors(app, cfg: Settings):
    origins = cfg.cors_origins()
    if not origins:
        # local frontend dev server
        origins = ["http://localhost:5173", "http://localhost:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=86400,
    )
