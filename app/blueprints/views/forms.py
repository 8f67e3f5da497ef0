"""
Forms for the rendered pages.
"""
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import StringField, PasswordField, SubmitField
from wtforms.validators import DataRequired, Email, Length, EqualTo


class LoginForm(FlaskForm):
    """User login form."""

    email = StringField('Email address', validators=[
        DataRequired(message='Please provide your email.'),
        Email(message='Please provide a valid email.')
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Please provide a password.')
    ])
    submit = SubmitField('Login')


class SignupForm(FlaskForm):
    """Account creation form."""

    name = StringField('Your name', validators=[
        DataRequired(message='Please tell us your name.'),
        Length(max=100)
    ])
    email = StringField('Email address', validators=[
        DataRequired(message='Please provide your email.'),
        Email(message='Please provide a valid email.'),
        Length(max=120)
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Please provide a password.'),
        Length(min=8, message='Password must have at least 8 characters.')
    ])
    password_confirm = PasswordField('Confirm password', validators=[
        DataRequired(message='Please confirm your password.'),
        EqualTo('password', message='Passwords are not the same.')
    ])
    submit = SubmitField('Sign up')


class UserDataForm(FlaskForm):
    """Account settings: name, email and photo."""

    name = StringField('Name', validators=[
        DataRequired(message='Please tell us your name.'),
        Length(max=100)
    ])
    email = StringField('Email address', validators=[
        DataRequired(message='Please provide your email.'),
        Email(message='Please provide a valid email.'),
        Length(max=120)
    ])
    photo = FileField('Choose new photo', validators=[
        FileAllowed(['jpg', 'jpeg', 'png', 'gif', 'webp'], 'Not an image! Please upload only images.')
    ])
    submit = SubmitField('Save settings')
