from flask import Flask, Response, request

from coa_scraper import handle_request, load_settings
from coa_scraper import responder
from coa_scraper.log import configure_logging


def to_flask(resp):
    return Response(resp.to_json(), status=resp.status, headers=resp.headers)


def create_app(settings=None):
    settings = settings or load_settings()
    configure_logging(settings.log_level, json_output=settings.is_production)

    app = Flask(__name__)
    app.debug = False
    app.config["COA_SETTINGS"] = settings

    @app.route("/api/scrape", methods=["GET", "OPTIONS"])
    def scrape():
        return to_flask(handle_request(request.method, request.args, settings))

    @app.errorhandler(405)
    def method_not_allowed(e):
        return to_flask(responder.method_not_allowed(request.method))

    return app


# WSGI entrypoint, also imported by api/index.py on Vercel
app = create_app()

# Vercel ignores this block, but keep it for local testing
if __name__ == "__main__":
    app.run()
