from flask import g, jsonify, request

from portfolio_cms import db
from portfolio_cms.errors import APIError
from portfolio_cms.models import (
    FAQ,
    STATUS_PUBLISHED,
    Category,
    Page,
    Post,
    Project,
    Service,
    Skill,
    Testimonial,
    utcnow,
)
from portfolio_cms.routes import api_bp, apply_updates, json_body, parse_bool
from portfolio_cms.schemas import (
    CategoryCreate,
    CategoryUpdate,
    FAQCreate,
    FAQUpdate,
    PageCreate,
    PageUpdate,
    PostCreate,
    PostUpdate,
    ProjectCreate,
    ProjectUpdate,
    ServiceCreate,
    ServiceUpdate,
    SkillCreate,
    SkillUpdate,
    TestimonialCreate,
    TestimonialUpdate,
)
from portfolio_cms.security import log_activity, login_required


def newest_first(model):
    return model.query.order_by(model.created_at.desc(), model.id.desc())


def increment_views(model, item_id):
    updated = model.query.filter_by(id=item_id).update(
        {model.views: model.views + 1}, synchronize_session=False
    )
    db.session.commit()
    return updated


def find_by_id_or_slug(model, id_or_slug, description):
    if id_or_slug.isdigit():
        item = db.session.get(model, int(id_or_slug))
    else:
        item = model.query.filter_by(slug=id_or_slug).first()
    if not item:
        raise APIError(description, 404)
    return item


def ensure_unique_slug(model, slug, exclude_id=None):
    existing = model.query.filter_by(slug=slug).first()
    if existing and existing.id != exclude_id:
        raise APIError('Slug already exists', 400)


def stamp_publication(item):
    if item.status == STATUS_PUBLISHED and not item.published_at:
        item.published_at = utcnow()


def published_listing(model):
    query = model.query
    if parse_bool(request.args.get('published')):
        query = query.filter_by(status=STATUS_PUBLISHED).order_by(
            model.published_at.desc(), model.created_at.desc(), model.id.desc()
        )
    else:
        query = query.order_by(model.created_at.desc(), model.id.desc())
    return query.all()


# --- Projects CRUD ---
@api_bp.route('/projects', methods=['GET'])
def get_projects():
    query = newest_first(Project)
    if parse_bool(request.args.get('published')):
        query = query.filter(Project.status == STATUS_PUBLISHED)
    return jsonify([p.to_dict() for p in query.all()])


@api_bp.route('/projects/<int:project_id>', methods=['GET'])
def get_project(project_id):
    project = db.get_or_404(Project, project_id, description='Project not found')
    return jsonify(project.to_dict())


@api_bp.route('/projects', methods=['POST'])
@login_required
def create_project():
    payload = ProjectCreate.model_validate(json_body())
    project = Project(**payload.model_dump())
    db.session.add(project)
    log_activity(f'Created project "{project.title}"', user=g.user, type='create')
    db.session.commit()
    return jsonify(project.to_dict()), 201


@api_bp.route('/projects/<int:project_id>', methods=['PUT'])
@login_required
def update_project(project_id):
    project = db.get_or_404(Project, project_id, description='Project not found')
    apply_updates(project, ProjectUpdate.model_validate(json_body()))
    project.updated_at = utcnow()
    log_activity(f'Updated project "{project.title}"', user=g.user, type='update')
    db.session.commit()
    return jsonify(project.to_dict())


@api_bp.route('/projects/<int:project_id>', methods=['DELETE'])
@login_required
def delete_project(project_id):
    project = db.get_or_404(Project, project_id, description='Project not found')
    db.session.delete(project)
    log_activity(f'Deleted project "{project.title}"', user=g.user, type='delete')
    db.session.commit()
    return jsonify({'message': 'Project deleted'})


@api_bp.route('/projects/<int:project_id>/view', methods=['POST'])
def view_project(project_id):
    if not increment_views(Project, project_id):
        raise APIError('Project not found', 404)
    return jsonify({'message': 'View recorded'})


# --- Posts CRUD ---
@api_bp.route('/posts', methods=['GET'])
def get_posts():
    return jsonify([p.to_dict() for p in published_listing(Post)])


@api_bp.route('/posts/<id_or_slug>', methods=['GET'])
def get_post(id_or_slug):
    post = find_by_id_or_slug(Post, id_or_slug, 'Post not found')
    return jsonify(post.to_dict())


@api_bp.route('/posts', methods=['POST'])
@login_required
def create_post():
    payload = PostCreate.model_validate(json_body())
    ensure_unique_slug(Post, payload.slug)
    post = Post(**payload.model_dump())
    stamp_publication(post)
    db.session.add(post)
    log_activity(f'Created post "{post.title}"', user=g.user, type='create')
    db.session.commit()
    return jsonify(post.to_dict()), 201


@api_bp.route('/posts/<int:post_id>', methods=['PUT'])
@login_required
def update_post(post_id):
    post = db.get_or_404(Post, post_id, description='Post not found')
    payload = PostUpdate.model_validate(json_body())
    if payload.slug:
        ensure_unique_slug(Post, payload.slug, exclude_id=post.id)
    apply_updates(post, payload)
    stamp_publication(post)
    post.updated_at = utcnow()
    log_activity(f'Updated post "{post.title}"', user=g.user, type='update')
    db.session.commit()
    return jsonify(post.to_dict())


@api_bp.route('/posts/<int:post_id>', methods=['DELETE'])
@login_required
def delete_post(post_id):
    post = db.get_or_404(Post, post_id, description='Post not found')
    db.session.delete(post)
    log_activity(f'Deleted post "{post.title}"', user=g.user, type='delete')
    db.session.commit()
    return jsonify({'message': 'Post deleted'})


@api_bp.route('/posts/<int:post_id>/view', methods=['POST'])
def view_post(post_id):
    if not increment_views(Post, post_id):
        raise APIError('Post not found', 404)
    return jsonify({'message': 'View recorded'})


# --- Pages CRUD ---
@api_bp.route('/pages', methods=['GET'])
def get_pages():
    return jsonify([p.to_dict() for p in published_listing(Page)])


@api_bp.route('/pages/<id_or_slug>', methods=['GET'])
def get_page(id_or_slug):
    page = find_by_id_or_slug(Page, id_or_slug, 'Page not found')
    return jsonify(page.to_dict())


@api_bp.route('/pages', methods=['POST'])
@login_required
def create_page():
    payload = PageCreate.model_validate(json_body())
    ensure_unique_slug(Page, payload.slug)
    page = Page(**payload.model_dump())
    stamp_publication(page)
    db.session.add(page)
    log_activity(f'Created page "{page.title}"', user=g.user, type='create')
    db.session.commit()
    return jsonify(page.to_dict()), 201


@api_bp.route('/pages/<int:page_id>', methods=['PUT'])
@login_required
def update_page(page_id):
    page = db.get_or_404(Page, page_id, description='Page not found')
    payload = PageUpdate.model_validate(json_body())
    if payload.slug:
        ensure_unique_slug(Page, payload.slug, exclude_id=page.id)
    apply_updates(page, payload)
    stamp_publication(page)
    page.updated_at = utcnow()
    log_activity(f'Updated page "{page.title}"', user=g.user, type='update')
    db.session.commit()
    return jsonify(page.to_dict())


@api_bp.route('/pages/<int:page_id>', methods=['DELETE'])
@login_required
def delete_page(page_id):
    page = db.get_or_404(Page, page_id, description='Page not found')
    db.session.delete(page)
    log_activity(f'Deleted page "{page.title}"', user=g.user, type='delete')
    db.session.commit()
    return jsonify({'message': 'Page deleted'})


@api_bp.route('/pages/<int:page_id>/view', methods=['POST'])
def view_page(page_id):
    if not increment_views(Page, page_id):
        raise APIError('Page not found', 404)
    return jsonify({'message': 'View recorded'})


# --- Skills CRUD ---
@api_bp.route('/skills', methods=['GET'])
def get_skills():
    skills = Skill.query.order_by(Skill.order, Skill.id).all()
    return jsonify([s.to_dict() for s in skills])


@api_bp.route('/skills/<int:skill_id>', methods=['GET'])
def get_skill(skill_id):
    skill = db.get_or_404(Skill, skill_id, description='Skill not found')
    return jsonify(skill.to_dict())


@api_bp.route('/skills', methods=['POST'])
@login_required
def create_skill():
    skill = Skill(**SkillCreate.model_validate(json_body()).model_dump())
    db.session.add(skill)
    db.session.commit()
    return jsonify(skill.to_dict()), 201


@api_bp.route('/skills/<int:skill_id>', methods=['PUT'])
@login_required
def update_skill(skill_id):
    skill = db.get_or_404(Skill, skill_id, description='Skill not found')
    apply_updates(skill, SkillUpdate.model_validate(json_body()))
    db.session.commit()
    return jsonify(skill.to_dict())


@api_bp.route('/skills/<int:skill_id>', methods=['DELETE'])
@login_required
def delete_skill(skill_id):
    skill = db.get_or_404(Skill, skill_id, description='Skill not found')
    db.session.delete(skill)
    db.session.commit()
    return jsonify({'message': 'Skill deleted'})


# --- Services CRUD ---
@api_bp.route('/services', methods=['GET'])
def get_services():
    query = Service.query.order_by(Service.order, Service.id)
    if parse_bool(request.args.get('active')):
        query = query.filter(Service.active.is_(True))
    return jsonify([s.to_dict() for s in query.all()])


@api_bp.route('/services/<int:service_id>', methods=['GET'])
def get_service(service_id):
    service = db.get_or_404(Service, service_id, description='Service not found')
    return jsonify(service.to_dict())


@api_bp.route('/services', methods=['POST'])
@login_required
def create_service():
    service = Service(**ServiceCreate.model_validate(json_body()).model_dump())
    db.session.add(service)
    db.session.commit()
    return jsonify(service.to_dict()), 201


@api_bp.route('/services/<int:service_id>', methods=['PUT'])
@login_required
def update_service(service_id):
    service = db.get_or_404(Service, service_id, description='Service not found')
    apply_updates(service, ServiceUpdate.model_validate(json_body()))
    db.session.commit()
    return jsonify(service.to_dict())


@api_bp.route('/services/<int:service_id>', methods=['DELETE'])
@login_required
def delete_service(service_id):
    service = db.get_or_404(Service, service_id, description='Service not found')
    db.session.delete(service)
    db.session.commit()
    return jsonify({'message': 'Service deleted'})


# --- Testimonials CRUD ---
@api_bp.route('/testimonials', methods=['GET'])
def get_testimonials():
    query = newest_first(Testimonial)
    if parse_bool(request.args.get('active')):
        query = query.filter(Testimonial.active.is_(True))
    return jsonify([t.to_dict() for t in query.all()])


@api_bp.route('/testimonials/<int:testimonial_id>', methods=['GET'])
def get_testimonial(testimonial_id):
    testimonial = db.get_or_404(Testimonial, testimonial_id, description='Testimonial not found')
    return jsonify(testimonial.to_dict())


@api_bp.route('/testimonials', methods=['POST'])
@login_required
def create_testimonial():
    testimonial = Testimonial(**TestimonialCreate.model_validate(json_body()).model_dump())
    db.session.add(testimonial)
    db.session.commit()
    return jsonify(testimonial.to_dict()), 201


@api_bp.route('/testimonials/<int:testimonial_id>', methods=['PUT'])
@login_required
def update_testimonial(testimonial_id):
    testimonial = db.get_or_404(Testimonial, testimonial_id, description='Testimonial not found')
    apply_updates(testimonial, TestimonialUpdate.model_validate(json_body()))
    db.session.commit()
    return jsonify(testimonial.to_dict())


@api_bp.route('/testimonials/<int:testimonial_id>', methods=['DELETE'])
@login_required
def delete_testimonial(testimonial_id):
    testimonial = db.get_or_404(Testimonial, testimonial_id, description='Testimonial not found')
    db.session.delete(testimonial)
    db.session.commit()
    return jsonify({'message': 'Testimonial deleted'})


# --- Categories CRUD ---
@api_bp.route('/categories', methods=['GET'])
def get_categories():
    query = Category.query.order_by(Category.name, Category.id)
    category_type = request.args.get('type')
    if category_type:
        query = query.filter_by(type=category_type)
    return jsonify([c.to_dict() for c in query.all()])


@api_bp.route('/categories/<int:category_id>', methods=['GET'])
def get_category(category_id):
    category = db.get_or_404(Category, category_id, description='Category not found')
    return jsonify(category.to_dict())


@api_bp.route('/categories', methods=['POST'])
@login_required
def create_category():
    payload = CategoryCreate.model_validate(json_body())
    ensure_unique_slug(Category, payload.slug)
    category = Category(**payload.model_dump())
    db.session.add(category)
    db.session.commit()
    return jsonify(category.to_dict()), 201


@api_bp.route('/categories/<int:category_id>', methods=['PUT'])
@login_required
def update_category(category_id):
    category = db.get_or_404(Category, category_id, description='Category not found')
    payload = CategoryUpdate.model_validate(json_body())
    if payload.slug:
        ensure_unique_slug(Category, payload.slug, exclude_id=category.id)
    apply_updates(category, payload)
    db.session.commit()
    return jsonify(category.to_dict())


@api_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@login_required
def delete_category(category_id):
    category = db.get_or_404(Category, category_id, description='Category not found')
    db.session.delete(category)
    db.session.commit()
    return jsonify({'message': 'Category deleted'})


# --- FAQs CRUD ---
@api_bp.route('/faqs', methods=['GET'])
def get_faqs():
    query = FAQ.query.order_by(FAQ.order, FAQ.id)
    if parse_bool(request.args.get('visible')):
        query = query.filter(FAQ.visible.is_(True))
    return jsonify([f.to_dict() for f in query.all()])


@api_bp.route('/faqs/<int:faq_id>', methods=['GET'])
def get_faq(faq_id):
    faq = db.get_or_404(FAQ, faq_id, description='FAQ not found')
    return jsonify(faq.to_dict())


@api_bp.route('/faqs', methods=['POST'])
@login_required
def create_faq():
    faq = FAQ(**FAQCreate.model_validate(json_body()).model_dump())
    db.session.add(faq)
    db.session.commit()
    return jsonify(faq.to_dict()), 201


@api_bp.route('/faqs/<int:faq_id>', methods=['PUT'])
@login_required
def update_faq(faq_id):
    faq = db.get_or_404(FAQ, faq_id, description='FAQ not found')
    apply_updates(faq, FAQUpdate.model_validate(json_body()))
    faq.updated_at = utcnow()
    db.session.commit()
    return jsonify(faq.to_dict())


@api_bp.route('/faqs/<int:faq_id>', methods=['DELETE'])
@login_required
def delete_faq(faq_id):
    faq = db.get_or_404(FAQ, faq_id, description='FAQ not found')
    db.session.delete(faq)
    db.session.commit()
    return jsonify({'message': 'FAQ deleted'})
