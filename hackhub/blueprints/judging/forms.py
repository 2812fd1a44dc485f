from wtforms import StringField, TextAreaField, IntegerField, FloatField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from ...utils.forms import ApiForm


class RubricForm(ApiForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=120)])
    description = TextAreaField("Description", validators=[Optional()])
    max_score = IntegerField("Max score", default=10, validators=[Optional(), NumberRange(min=1)])
    weight = FloatField("Weight", default=1.0, validators=[Optional(), NumberRange(min=0.01)])
    sort_order = IntegerField("Sort order", validators=[Optional()])


class JudgeForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Length(max=255)])
