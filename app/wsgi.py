from app.distro import create_app

app = create_app()
