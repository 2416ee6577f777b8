"""Public site pages, namespaced as 'public'."""

from django.urls import path

from listings.pages import HomeView, ListingDetailView, SearchView

app_name = 'public'

urlpatterns = [
    path('', HomeView.as_view(), name='home'),
    path('search/', SearchView.as_view(), name='search'),
    path('listing/<slug:slug>/', ListingDetailView.as_view(), name='listing-detail'),
]
