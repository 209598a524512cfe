import uvicorn

from .settings import HOST, LOG_LEVEL, PORT


def main() -> None:
    uvicorn.run("threebody.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
