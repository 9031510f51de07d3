from app.motobooster import create_app

app = create_app()
