import atexit

from app.crm import create_app

app = create_app()
atexit.register(app.extensions["crm_cleanup"])
