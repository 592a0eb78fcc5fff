def register_blueprints(app):
    from app.routes.health import health_bp
    from app.routes.sources import sources_bp
    from app.routes.claims import claims_bp
    from app.routes.rankings import rankings_bp
    from app.routes.moderation import moderation_bp
    from app.routes.admin import admin_bp
    from app.routes.cron import cron_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(sources_bp, url_prefix='/api/sources')
    app.register_blueprint(claims_bp, url_prefix='/api/claims')
    app.register_blueprint(rankings_bp, url_prefix='/api/rankings')
    app.register_blueprint(moderation_bp, url_prefix='/api/mod')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(cron_bp, url_prefix='/api/cron')
