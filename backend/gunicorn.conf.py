# Bind & workers
bind = "0.0.0.0:8000"
workers = 2  # override with env GUNICORN_WORKERS
# Threads share one key store and one rate limiter per worker process
worker_class = "gthread"
threads = 4
timeout = 30
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by Docker)
accesslog = "-"
errorlog = "-"
loglevel = "info"  # override with env LOG_LEVEL

# Trust proxy headers; the app applies ProxyFix when USE_PROXYFIX is set
forwarded_allow_ips = "*"
proxy_protocol = False


# Key rotation without a restart: `pkill -HUP -P <master pid>` signals every
# worker, which reloads its signing keys from .env and the PEM files.
def post_worker_init(worker):
    import signal

    from taskauth.core.security import EXTENSION_KEY, reload_signing_keys
    from taskauth.services._shared.errors import ConfigurationError

    app = worker.wsgi
    if EXTENSION_KEY not in getattr(app, "extensions", {}):
        return

    def _reload(signum, frame):
        try:
            key_set = reload_signing_keys(app)
        except ConfigurationError:
            worker.log.exception("Signing key reload failed; keeping the previous keys")
        else:
            worker.log.info("Signing keys reloaded, current kid %s", key_set.current_key_id)

    signal.signal(signal.SIGHUP, _reload)
