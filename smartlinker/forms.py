"""Forms for the smartlinker app."""

from __future__ import annotations

from django import forms


class ApplySuggestionForm(forms.Form):
    """Identifies one pending suggestion by its section and target document."""

    section_index = forms.IntegerField(min_value=0, label='Section index')
    target_document_id = forms.IntegerField(min_value=1, label='Target document')
