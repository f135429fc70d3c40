import uvicorn
import logging

from pytfstate import create_app, get_settings

settings = get_settings()
logging.basicConfig(level=settings.LOG_LEVEL)

app = create_app(settings)

if __name__ == '__main__':
    uvicorn.run(
        'main:app',
        host=settings.listen_host,
        port=settings.listen_port,
        access_log=False,
        timeout_keep_alive=120,
        timeout_graceful_shutdown=30,
    )
