from transformo.routes.billing import billing_bp
from transformo.routes.content import content_bp
from transformo.routes.stripe_webhook import stripe_webhook_bp


def register_blueprints(app):
    app.register_blueprint(stripe_webhook_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(content_bp)
