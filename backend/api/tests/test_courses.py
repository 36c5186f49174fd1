from django.contrib.auth.models import User
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Profile
from courses.models import Course, Enrollment, Lesson, LessonProgress
from quizzes.models import Quiz, QuizAttempt


class CourseTests(APITestCase):
    def setUp(self):
        self.instructor = User.objects.create_user(username='instructor', password='pass123')
        Profile.objects.create(user=self.instructor, role=Profile.Role.INSTRUCTOR)
        self.learner = User.objects.create_user(username='learner', password='pass123')
        self.list_url = reverse('course-list')

    def test_instructor_creates_course(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(self.list_url, {'title': 'Python 101'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        course = Course.objects.get()
        self.assertEqual(course.responsible, self.instructor)
        self.assertFalse(course.published)

    def test_learner_cannot_create_course(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.post(self.list_url, {'title': 'Python 101'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_learners_only_see_published_courses(self):
        Course.objects.create(title='Draft', responsible=self.instructor)
        Course.objects.create(title='Live', responsible=self.instructor, published=True)
        self.client.force_authenticate(user=self.learner)
        response = self.client.get(self.list_url)
        self.assertEqual([course['title'] for course in response.data], ['Live'])

    def test_enroll(self):
        course = Course.objects.create(title='Live', responsible=self.instructor, published=True)
        self.client.force_authenticate(user=self.learner)
        url = reverse('course-enroll', args=[course.id])
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Enrollment.Status.NOT_STARTED)
        self.client.post(url)
        self.assertEqual(Enrollment.objects.filter(course=course, user=self.learner).count(), 1)

    def test_cannot_enroll_in_draft(self):
        course = Course.objects.create(title='Draft', responsible=self.instructor)
        self.client.force_authenticate(user=self.learner)
        response = self.client.post(reverse('course-enroll', args=[course.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class LessonTests(APITestCase):
    def setUp(self):
        self.instructor = User.objects.create_user(username='instructor', password='pass123')
        Profile.objects.create(user=self.instructor, role=Profile.Role.INSTRUCTOR)
        self.learner = User.objects.create_user(username='learner', password='pass123')
        self.course = Course.objects.create(title='Python 101', responsible=self.instructor, published=True)
        self.quiz = Quiz.objects.create(course=self.course, title='Checkpoint')
        Enrollment.objects.create(course=self.course, user=self.learner)
        self.lessons_url = reverse('author-lessons', args=[self.course.id])

    def test_create_lessons_appends(self):
        self.client.force_authenticate(user=self.instructor)
        first = self.client.post(self.lessons_url, {'title': 'Intro', 'lesson_type': 'video'}, format='json')
        second = self.client.post(
            self.lessons_url,
            {'title': 'Check', 'lesson_type': 'quiz', 'quiz': self.quiz.id},
            format='json',
        )
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED)
        self.assertEqual([first.data['sort_order'], second.data['sort_order']], [0, 1])

    def test_quiz_lesson_needs_quiz_from_this_course(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(self.lessons_url, {'title': 'Check', 'lesson_type': 'quiz'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        other_course = Course.objects.create(title='Other', responsible=self.instructor)
        foreign_quiz = Quiz.objects.create(course=other_course, title='Elsewhere')
        response = self.client.post(
            self.lessons_url,
            {'title': 'Check', 'lesson_type': 'quiz', 'quiz': foreign_quiz.id},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quiz', response.data)

    def test_reorder_lessons(self):
        first = Lesson.objects.create(course=self.course, title='A', lesson_type='video', sort_order=0)
        second = Lesson.objects.create(course=self.course, title='B', lesson_type='document', sort_order=1)
        self.client.force_authenticate(user=self.instructor)
        url = reverse('author-lessons-reorder', args=[self.course.id])
        response = self.client.post(url, {'lesson_ids': [second.id, first.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([lesson['id'] for lesson in response.data], [second.id, first.id])
        response = self.client.post(url, {'lesson_ids': [second.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_learner_progress(self):
        video = Lesson.objects.create(course=self.course, title='Intro', lesson_type='video', sort_order=0)
        quiz_lesson = Lesson.objects.create(
            course=self.course, title='Check', lesson_type='quiz', quiz=self.quiz, sort_order=1
        )
        self.client.force_authenticate(user=self.learner)

        response = self.client.post(
            reverse('lesson-progress', args=[self.course.id, video.id]), {'status': 'completed'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], LessonProgress.Status.COMPLETED)

        quiz_progress_url = reverse('lesson-progress', args=[self.course.id, quiz_lesson.id])
        response = self.client.post(quiz_progress_url, {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        now = timezone.now()
        QuizAttempt.objects.create(
            quiz=self.quiz, user=self.learner, attempt_number=1, score=100, started_at=now, completed_at=now
        )
        response = self.client.post(quiz_progress_url, {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        outline = self.client.get(reverse('course-lessons', args=[self.course.id]))
        self.assertEqual([lesson['progress'] for lesson in outline.data], ['completed', 'completed'])
        enrollment = Enrollment.objects.get(course=self.course, user=self.learner)
        self.assertEqual(enrollment.status, Enrollment.Status.COMPLETED)
