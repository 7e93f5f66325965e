from django.views.generic.base import TemplateView

from accounts.decorators import SessionRequiredMixin


class HomePageView(SessionRequiredMixin, TemplateView):
    template_name = "homepage.html"
