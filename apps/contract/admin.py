from django.contrib import admin
from .models import Contract, Milestone, MilestoneSubmission

admin.site.register(Contract)
admin.site.register(Milestone)
admin.site.register(MilestoneSubmission)
