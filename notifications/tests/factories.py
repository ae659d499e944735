import factory
from common.choices import NotificationType
from factory.django import DjangoModelFactory
from notifications.models import Notification
from users.tests.factories import UserFactory


class NotificationFactory(DjangoModelFactory):
    class Meta:
        model = Notification

    user = factory.SubFactory(UserFactory)
    type = NotificationType.ORDER_STATUS
    title = factory.Faker("sentence", nb_words=4)
    message = factory.Faker("sentence")
