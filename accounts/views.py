import logging

from django.contrib.auth import authenticate
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from marketplace.api import json_body, ok, validated
from marketplace.serializers import user_to_dict
from marketplace.services.exceptions import Unauthenticated

from .decorators import token_required
from .forms import LoginForm, RegistrationForm
from .tokens import create_access_token

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def register(request):
    form = RegistrationForm(json_body(request))
    validated(form)
    user = form.save()
    logger.info("Registered user %s as %s", user.pk, user.role)
    return ok(
        {
            "user": user_to_dict(user, private=True),
            "access_token": create_access_token(user),
            "token_type": "bearer",
        },
        status=201,
    )


@csrf_exempt
@require_POST
def login(request):
    data = validated(LoginForm(json_body(request)))
    # username is the email (see RegistrationForm.save)
    user = authenticate(request, username=data["email"], password=data["password"])
    if user is None:
        raise Unauthenticated("Invalid credentials.")
    return ok(
        {
            "user": user_to_dict(user, private=True),
            "access_token": create_access_token(user),
            "token_type": "bearer",
        }
    )


@require_GET
@token_required()
def me(request):
    return ok(user_to_dict(request.user, private=True))
