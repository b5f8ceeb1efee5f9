from rest_framework import serializers


class BankAccountCreateSerializer(serializers.Serializer):
    account_number = serializers.CharField(max_length=18)
    ifsc_code = serializers.CharField(max_length=11)
    holder_name = serializers.CharField(max_length=100)


class BankAccountUpdateSerializer(serializers.Serializer):
    ifsc_code = serializers.CharField(max_length=11, required=False)
    holder_name = serializers.CharField(max_length=100, required=False)
