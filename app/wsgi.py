from app.boaz import create_app

app = create_app()
