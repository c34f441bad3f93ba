from django.contrib import admin
from .models import Proposal, ProposalMilestone

admin.site.register(Proposal)
admin.site.register(ProposalMilestone)
