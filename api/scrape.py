# Netlify / AWS Lambda style function: handler(event, context) -> dict
from coa_scraper import handle_request, load_settings
from coa_scraper.log import configure_logging


def handler(event, context=None):
    settings = load_settings()
    configure_logging(settings.log_level, json_output=settings.is_production)

    event = event or {}
    method = event.get("httpMethod") or event.get("method") or "GET"
    params = event.get("queryStringParameters") or {}

    return handle_request(method, params, settings).to_lambda()
