from dotenv import load_dotenv
load_dotenv()

import uvicorn

from api.main import app


def main():
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
