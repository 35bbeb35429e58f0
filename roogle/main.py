import logging

import requests
from flask import Flask, Response, render_template, request

from .config import DefaultConfig, INTERCEPT_POINTS, REWRITER_NAMES
from .gateway import Gateway, resolve_target, text_response
from .links import InvalidTarget, ProxyLinkCodec

logger = logging.getLogger(__name__)


def create_app(overrides=None, fetch=None):
    """
    Builds the gateway application.

    ``fetch`` is the upstream transport, called like ``requests.request``.
    Settings come from ``DefaultConfig``, then ``ROOGLE_*`` environment
    variables, then ``overrides``.
    """
    app = Flask(__name__)
    app.config.from_object(DefaultConfig)
    app.config.from_prefixed_env("ROOGLE")
    if overrides:
        app.config.from_mapping(overrides)

    if app.config['REWRITER'] not in REWRITER_NAMES:
        raise ValueError(f"REWRITER must be one of {REWRITER_NAMES}")
    unknown = set(app.config['INTERCEPT']) - set(INTERCEPT_POINTS)
    if unknown:
        raise ValueError(f"Unknown interception points: {sorted(unknown)}")

    app.extensions['roogle.fetch'] = fetch or requests.request

    def public_url():
        return (app.config['PUBLIC_URL'] or request.host_url).rstrip('/')

    def codec():
        return ProxyLinkCodec(public_url() + app.config['PROXY_PATH'])

    def proxy():
        """Forwards ``?url=`` (or expands ``?q=``) and returns the rewritten answer."""
        if request.method == 'OPTIONS':
            return text_response('', 204)
        try:
            target = resolve_target(request.args, request.method, app.config['SEARCH_URL'])
        except InvalidTarget as e:
            return text_response(str(e), 400)

        gateway = Gateway(
            app.extensions['roogle.fetch'],
            codec(),
            public_url() + app.config['INJECT_PATH'],
            app.config,
        )
        body = request.get_data() if request.method == 'POST' else None
        return gateway.handle(request.method, target, request.headers, body)

    for path in [app.config['PROXY_PATH'], *app.config['PROXY_ROUTE_ALIASES']]:
        app.add_url_rule(
            path.rstrip('/') + '/',
            endpoint=f"proxy:{path}",
            view_func=proxy,
            methods=['GET', 'POST', 'OPTIONS'],
            strict_slashes=False,
            provide_automatic_options=False,
        )

    @app.route(app.config['INJECT_PATH'])
    def inject_script():
        """Serves the page rewriter bound to this gateway's canonical base."""
        script = render_template(
            'inject.js',
            proxy_base=codec().base,
            intercept={point: point in app.config['INTERCEPT'] for point in INTERCEPT_POINTS},
        )
        return Response(script, mimetype='application/javascript', headers={
            'Access-Control-Allow-Origin': '*',
            'Cache-Control': 'no-cache',
        })

    @app.errorhandler(404)
    def not_found(e):
        return text_response("Not a valid route.", 404)

    return app


app = create_app()


if __name__ == '__main__':
    logging.basicConfig(level=app.config['LOG_LEVEL'])
    app.run(debug=True, port=5000)
