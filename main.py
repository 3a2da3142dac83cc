"""Run the code mailer HTTP server with settings from config.ini / ACM_* env vars."""

from async_code_mailer.server import serve


if __name__ == "__main__":
    serve()
