from django.test import TestCase

from services.matching import CapabilityIndex
from .factories import make_provider, make_service


class CapabilityIndexTests(TestCase):
    def setUp(self):
        self.index = CapabilityIndex()
        self.plumbing = make_service('Plumbing')
        self.painting = make_service('Painting')
        self.gardening = make_service('Gardening')

        self.plumber = make_provider([self.plumbing])
        self.handyman = make_provider([self.plumbing, self.painting])

    def test_providers_for_category(self):
        self.assertEqual(self.index.providers_for(self.plumbing.id), {self.plumber.id, self.handyman.id})
        self.assertEqual(self.index.providers_for(self.painting.id), {self.handyman.id})

    def test_nobody_serves_category(self):
        self.assertEqual(self.index.providers_for(self.gardening.id), set())
        self.assertEqual(self.index.providers_for(9999), set())

    def test_categories_for_provider(self):
        self.assertEqual(self.index.categories_for(self.handyman.id), {self.plumbing.id, self.painting.id})
        self.assertEqual(self.index.categories_for(9999), set())

    def test_index_follows_profile_changes(self):
        self.handyman.provider_profile.services.add(self.gardening)

        self.assertIn(self.handyman.id, self.index.providers_for(self.gardening.id))
