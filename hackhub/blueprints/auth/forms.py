from wtforms import StringField, PasswordField
from wtforms.validators import DataRequired, Email, Length, Optional

from ...utils.forms import ApiForm


class SignupForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=8)])
    full_name = StringField("Full name", validators=[Optional(), Length(max=160)])


class LoginForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])
