"""Local development entry point.

Usage:
    python run.py

Paystack must be able to reach /paystack/webhook for enrollments to land;
for local testing expose the port with a tunnel and set APP_BASE_URL to it.
"""

import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from coursepay import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(debug=True, host="0.0.0.0", port=port)
