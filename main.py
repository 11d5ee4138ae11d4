from vidrelay.app import create_app, start_api

app = create_app()


if __name__ == "__main__":
    start_api(app)
