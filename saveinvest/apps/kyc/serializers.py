from rest_framework import serializers


class PanSerializer(serializers.Serializer):
    pan_number = serializers.CharField(max_length=10)
    name = serializers.CharField(max_length=128, required=False)


class AadhaarInitiateSerializer(serializers.Serializer):
    aadhaar_number = serializers.CharField(max_length=14)


class AadhaarVerifySerializer(serializers.Serializer):
    reference_id = serializers.CharField(max_length=64)
    otp = serializers.CharField(max_length=6)


class BankVerifySerializer(serializers.Serializer):
    account_number = serializers.CharField(max_length=18)
    ifsc_code = serializers.CharField(max_length=11)
    holder_name = serializers.CharField(max_length=100)


class LivenessSerializer(serializers.Serializer):
    # Opaque capture references forwarded to the provider
    selfie_ref = serializers.CharField(max_length=256, required=False)
    video_ref = serializers.CharField(max_length=256, required=False)
    score_hint = serializers.IntegerField(required=False, min_value=0, max_value=100)
    similarity_hint = serializers.IntegerField(required=False, min_value=0, max_value=100)


class AdminStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=["UNDER_REVIEW", "APPROVED", "REJECTED"])
    rejection_reason = serializers.CharField(required=False, allow_blank=True)
