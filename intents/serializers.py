"""
Serializers for the analysis endpoint.

Validation happens here, at the HTTP boundary; the engine assumes clean types.
"""
from rest_framework import serializers

from .engine.models import AnalyzeRequest, Intention, PageHit, Record


class PageHitSerializer(serializers.Serializer):
    """One ranking page for a phrase (GSC query+page row)."""
    url = serializers.CharField(max_length=2048)
    clicks = serializers.IntegerField(min_value=0, default=0)
    impressions = serializers.IntegerField(min_value=0, default=0)
    position = serializers.FloatField(min_value=0, default=0)


class RecordSerializer(serializers.Serializer):
    """
    One search phrase. Accepts "query" as an alias of "phrase" (GSC exports).
    CTR above 1 is read as a percentage; missing CTR is computed.
    """
    phrase = serializers.CharField(required=False, max_length=1024)
    query = serializers.CharField(required=False, max_length=1024, write_only=True)
    clicks = serializers.IntegerField(min_value=0, default=0)
    impressions = serializers.IntegerField(min_value=0, default=0)
    ctr = serializers.FloatField(min_value=0, max_value=100, required=False, allow_null=True)
    position = serializers.FloatField(min_value=0, default=0)
    pages = PageHitSerializer(many=True, required=False, default=list)

    def validate(self, attrs):
        phrase = (attrs.pop('phrase', None) or attrs.pop('query', None) or '').strip()
        attrs.pop('query', None)
        if not phrase:
            raise serializers.ValidationError({'phrase': 'This field is required.'})
        attrs['phrase'] = phrase

        ctr = attrs.get('ctr')
        if ctr is None:
            impressions = attrs['impressions']
            ctr = attrs['clicks'] / impressions if impressions else 0.0
        elif ctr > 1:
            ctr = ctr / 100
        attrs['ctr'] = ctr
        return attrs


class IntentionSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    examples = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    linguistic_signal = serializers.CharField(required=False, allow_blank=True, default='')
    ctr_avg = serializers.FloatField(required=False, default=0)
    position_avg = serializers.FloatField(required=False, default=0)
    volume = serializers.IntegerField(required=False, min_value=0, default=0)


class AnalyzeRequestSerializer(serializers.Serializer):
    records = RecordSerializer(many=True, allow_empty=True)
    intentions = IntentionSerializer(many=True, required=False, allow_null=True, default=None)
    brand = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    sector = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    site_theme = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    refine = serializers.BooleanField(required=False, default=True)
    curate = serializers.BooleanField(required=False, default=True)
    discover = serializers.BooleanField(required=False, default=True)

    def validate_intentions(self, value):
        if value is None:
            return value
        names = [i['name'] for i in value]
        if len(names) != len(set(names)):
            raise serializers.ValidationError('Intention names must be unique.')
        return value

    def to_records(self):
        return tuple(
            Record(
                phrase=r['phrase'],
                clicks=r['clicks'],
                impressions=r['impressions'],
                ctr=r['ctr'],
                position=r['position'],
                pages=tuple(PageHit(**p) for p in r.get('pages') or []),
            )
            for r in self.validated_data['records']
        )

    def to_intentions(self):
        raw = self.validated_data.get('intentions')
        if raw is None:
            return None
        return tuple(
            Intention(
                name=i['name'],
                description=i['description'],
                examples=tuple(i['examples']),
                linguistic_signal=i['linguistic_signal'],
                ctr_avg=i['ctr_avg'],
                position_avg=i['position_avg'],
                volume=i['volume'],
            )
            for i in raw
        )

    def to_request(self, intentions=None, site_theme=None) -> AnalyzeRequest:
        data = self.validated_data
        return AnalyzeRequest(
            records=self.to_records(),
            intentions=intentions if intentions is not None else self.to_intentions(),
            brand=data.get('brand') or None,
            sector=data.get('sector') or None,
            site_theme=site_theme or data.get('site_theme') or None,
        )
