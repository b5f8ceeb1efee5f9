from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from saveinvest.apps.onboarding.services import require_investment_allowed
from saveinvest.apps.savings.models import SavingsWallet
from saveinvest.apps.users.models import AppUser
from .models import InvestmentProduct, Redemption
from .serializers import (
    EvaluateSerializer,
    InvestmentSerializer,
    NavHistoryQuerySerializer,
    ProductSerializer,
    PurchaseSerializer,
    RedeemSerializer,
    RedemptionSerializer,
    RuleCreateSerializer,
    RuleUpdateSerializer,
)
from .services import purchase, redemption, rules
from .services.engine import evaluate_user
from .services.nav import NavFeed


@api_view(["GET"])
def products(request):
    qs = list(InvestmentProduct.objects.filter(is_active=True).order_by("name"))
    navs = NavFeed().current_navs(qs)
    return Response(ProductSerializer(qs, many=True, context={"navs": navs}).data)


@api_view(["GET", "POST"])
def auto_invest_rules(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    if request.method == "POST":
        s = RuleCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rule = rules.create_rule(user, **s.validated_data)
        return Response(rules.rule_as_dict(rule), status=status.HTTP_201_CREATED)
    return Response([rules.rule_as_dict(r) for r in rules.list_rules(user)])


@api_view(["PATCH"])
def auto_invest_rule_detail(request, user_id, rule_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = RuleUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    enabled = data.pop("enabled", None)
    new_status = data.pop("status", None)

    rule = rules.update_rule(user, rule_id, **data) if data else None
    if enabled is not None:
        rule = rules.set_enabled(user, rule_id, enabled)
    if new_status == "PAUSED":
        rule = rules.pause_rule(user, rule_id)
    elif new_status == "ACTIVE":
        rule = rules.resume_rule(user, rule_id)
    if rule is None:
        rule = rules.get_rule(user, rule_id)
    return Response(rules.rule_as_dict(rule))


@api_view(["POST"])
def toggle_rule(request, user_id, rule_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(rules.rule_as_dict(rules.toggle_rule(user, rule_id)))


@api_view(["POST"])
def evaluate_rules(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = EvaluateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    require_investment_allowed(user)
    report = evaluate_user(user, rule_ids=s.validated_data.get("rule_ids"))
    return Response(report.as_dict())


@api_view(["POST"])
def purchase_investment(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = PurchaseSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    investment = purchase.purchase(user, **s.validated_data)
    return Response(InvestmentSerializer(investment).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
def portfolio(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(purchase.portfolio(user))


@api_view(["GET", "POST"])
def redemptions(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    if request.method == "POST":
        s = RedeemSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        result = redemption.redeem(
            user, data["investment_id"], amount=data.get("amount"), reason=data.get("reason", "")
        )
        balance = SavingsWallet.objects.get(user=user).balance
        return Response(
            RedemptionSerializer(result, context={"balance": balance}).data,
            status=status.HTTP_201_CREATED,
        )
    qs = Redemption.objects.filter(user=user).select_related("investment__product")
    return Response(RedemptionSerializer(qs, many=True).data)


@api_view(["GET"])
def nav_history(request, product_id):
    s = NavHistoryQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    q = s.validated_data
    return Response(
        NavFeed().history(
            product_id, start=q.get("start_date"), end=q.get("end_date"), days=q["days"]
        )
    )
