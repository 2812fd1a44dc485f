from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from ...utils.forms import ApiForm


class ApplicationForm(ApiForm):
    team_name = StringField("Team name", validators=[DataRequired(), Length(max=120)])
    project_idea = TextAreaField("Project idea", validators=[Optional(), Length(max=4000)])
    why_join = TextAreaField("Why join", validators=[Optional(), Length(max=4000)])
    domain = StringField("Domain", validators=[Optional(), Length(max=120)])
    abstract = TextAreaField("Abstract", validators=[Optional(), Length(max=8000)])
