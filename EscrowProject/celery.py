import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'EscrowProject.settings')

app = Celery('EscrowProject')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
