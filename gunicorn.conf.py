import multiprocessing

wsgi_app = "stampcard:create_app()"

# Sensible defaults for a small dyno/container; tune as needed
workers = int((multiprocessing.cpu_count() * 2) + 1)
threads = 2
worker_class = "gthread"
# Each worker opens its own DB pool after fork
preload_app = False
bind = ":8000"
# Heroku/Render style proxy headers
forwarded_allow_ips = "*"
# Keep-alive tuning
timeout = 30
keepalive = 75
# Access logging; app logs go through loguru to stderr
accesslog = "-"
errorlog = "-"
loglevel = "info"
