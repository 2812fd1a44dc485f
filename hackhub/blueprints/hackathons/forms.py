from wtforms import StringField, TextAreaField, IntegerField, SelectField, DateTimeField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from ...models.hackathon import HACKATHON_MODES
from ...utils.forms import ApiForm

DATETIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d"]


class HackathonForm(ApiForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
    tagline = StringField("Tagline", validators=[Optional(), Length(max=255)])
    description = TextAreaField("Description", validators=[Optional()])
    rules = TextAreaField("Rules", validators=[Optional()])
    location = StringField("Location", validators=[Optional(), Length(max=200)])
    mode = SelectField("Mode", choices=[(m, m) for m in HACKATHON_MODES], default="online")
    start_date = DateTimeField("Start", format=DATETIME_FORMATS, validators=[Optional()])
    end_date = DateTimeField("End", format=DATETIME_FORMATS, validators=[Optional()])
    application_deadline = DateTimeField("Application deadline", format=DATETIME_FORMATS, validators=[Optional()])
    min_team_size = IntegerField("Min team size", validators=[Optional(), NumberRange(min=1)])
    max_team_size = IntegerField("Max team size", validators=[Optional(), NumberRange(min=1)])
    banner_url = StringField("Banner url", validators=[Optional(), Length(max=512)])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        lo, hi = self.min_team_size.data, self.max_team_size.data
        if lo and hi and lo > hi:
            self.max_team_size.errors.append("Must be at least the minimum team size")
            return False
        if self.start_date.data and self.end_date.data and self.end_date.data < self.start_date.data:
            self.end_date.errors.append("Must be after the start date")
            return False
        return True
