from django.urls import path

from . import views

app_name = "payments"

urlpatterns = [
    path("intents/", views.PaymentIntentView.as_view(), name="intents"),
    path(
        "intents/<uuid:payment_id>/status/",
        views.PaymentStatusView.as_view(),
        name="status",
    ),
    path(
        "intents/<uuid:payment_id>/cancel/",
        views.CancelPaymentView.as_view(),
        name="cancel",
    ),
    path(
        "referencia/<str:payment_type>/<str:reference_id>/",
        views.PaymentByReferenceView.as_view(),
        name="by-reference",
    ),
    path("webhook/", views.GatewayWebhookView.as_view(), name="webhook"),
    path(
        "mercadopago/webhook/",
        views.MercadoPagoWebhookView.as_view(),
        name="mercadopago-webhook",
    ),
]
