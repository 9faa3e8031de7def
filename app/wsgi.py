from app.bestbosses import create_app

app = create_app()
